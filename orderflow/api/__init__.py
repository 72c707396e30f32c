"""
HTTP surface for starting orders and submitting steps.
"""
