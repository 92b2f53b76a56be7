# Business logic for the frequency calculator
