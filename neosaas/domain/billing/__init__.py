"""Billing domain - Lago customers, invoices and the test-mode simulator"""
