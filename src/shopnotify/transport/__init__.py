"""Channel transports: the SMSing HTTP client and an in-process mock."""
