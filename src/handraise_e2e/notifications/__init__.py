"""Result notifications: channel config, formatting, email and webhook delivery."""
