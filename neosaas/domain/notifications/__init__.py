"""Notifications domain - team emails and admin chat alerts"""
