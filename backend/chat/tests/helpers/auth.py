TEST_SALT_SECRET = b"test-salt-secret-0123456789abcdef"
TEST_SALT = bytes(range(16))
