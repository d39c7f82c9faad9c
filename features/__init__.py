"""Feature packages of the certificate manager, importable as ``features.*``."""
