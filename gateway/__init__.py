"""
Gemini Gateway

JWT authentication and session management for the Gemini API gateway.
"""
