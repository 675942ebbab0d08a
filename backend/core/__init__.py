"""
Shared kernel for the SocialEats apps: error taxonomy, operation results and
the denormalized display-copy helper.
"""
