"""
auth — User authentication module.

Provides:
  • Password hashing (bcrypt, configurable work factor)
  • Signed session token creation & verification
  • Session cookie handling
  • Register / Login / Logout / Me / Update / Change-password API routes
  • ``get_current_user`` / ``get_current_user_id`` FastAPI dependencies
"""
