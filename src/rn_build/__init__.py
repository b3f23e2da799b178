"""Unattended React Native release builds handed off to fastlane."""

__version__ = "0.1.0"
