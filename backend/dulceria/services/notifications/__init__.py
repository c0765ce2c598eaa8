"""Transactional email: templates, outbox and SES delivery."""
