"""Terminal UI helpers (InquirerPy menus, rich console and spinners)."""
