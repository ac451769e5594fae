"""Open Trivia DB endpoints and request defaults."""

QUESTIONS_PATH = "/api.php"

# Questions come back percent-encoded (RFC 3986), the parser decodes them
ENCODING = "url3986"
QUESTION_TYPE = "multiple"

DEFAULT_HEADERS = {
    "Accept": "application/json",
}

# response_code values returned by the API
RESPONSE_OK = 0
RESPONSE_NO_RESULTS = 1
RESPONSE_INVALID_PARAMETER = 2
RESPONSE_TOKEN_NOT_FOUND = 3
RESPONSE_TOKEN_EMPTY = 4
RESPONSE_RATE_LIMIT = 5
