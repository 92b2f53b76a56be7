# Data models for the frequency calculator
