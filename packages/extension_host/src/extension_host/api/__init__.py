"""Extension-facing API surfaces built per running instance."""
