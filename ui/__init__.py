# User interface components
