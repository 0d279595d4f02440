"""
Hospital Billing Engine - Django project package
"""
