#!/usr/bin/env python3
"""Generate test JWT tokens for API testing."""

from trustwork.core.auth import create_access_token

SAMPLE_USERS = (
    ("admin-test", "admin"),
    ("employer-test", "employer"),
    ("seeker-test", "job_seeker"),
)


def main() -> None:
    for subject, role in SAMPLE_USERS:
        token = create_access_token(subject, roles=[role])
        print(f"{role} token ({subject}):\n{token}\n")


if __name__ == "__main__":
    main()
