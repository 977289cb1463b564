"""Domain constants shared by models, schemas and the client cache."""

MAX_POST_LENGTH = 280
MIN_POST_LENGTH = 1
