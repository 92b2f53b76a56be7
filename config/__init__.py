# Configuration for the frequency calculator
