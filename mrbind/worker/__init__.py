"""Worker-side binding of user functions to host worker classes."""
