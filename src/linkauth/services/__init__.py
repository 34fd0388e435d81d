"""Domain services: account store, magic links, sessions, email."""
