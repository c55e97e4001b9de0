"""Checkout domain - cart and appointment checkout orchestration"""
