"""Backend for the mobile checkout demo."""
