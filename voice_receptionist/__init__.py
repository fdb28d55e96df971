"""
Voice Receptionist
Telephone assistant that answers inbound calls turn by turn over Twilio webhooks
"""

__version__ = "1.0.0"
