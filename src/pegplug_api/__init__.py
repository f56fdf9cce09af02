"""PegPlug rewards and redemption service."""
