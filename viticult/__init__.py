"""Viticult Whisky backend.

REST API for the cask-investment marketing site: lead capture forms,
blog content, visitor tracking, GDPR requests and the admin dashboard.
"""
