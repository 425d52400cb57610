"""PayApp payment / rebill bridge."""
