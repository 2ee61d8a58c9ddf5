"""otpbot CLI — ``python -m otpbot``.

Usage:
    python -m otpbot run                 # Start the Discord bot
    python -m otpbot status              # Show effective configuration
    python -m otpbot code SECRET         # Current code for a secret
    python -m otpbot generate --qr a.png # New secret + QR code
    python -m otpbot verify SECRET CODE  # Check a code
"""

from otpbot.cli import main

if __name__ == "__main__":
    main()
