class EmailAlreadyRegistered(Exception):
    """Raised by a user store when its uniqueness constraint on email rejects an insert."""

    def __init__(self, email: str):
        super().__init__(f"email already registered: {email}")
        self.email = email
