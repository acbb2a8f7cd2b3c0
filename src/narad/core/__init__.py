"""Configuration, exceptions, logging and serialization shared by every layer."""
