import argparse

from app.core.security import create_access_token


def issue_token(subject: str, role: str) -> str:
    return create_access_token(subject, role=role)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Issue a bearer token for calling the maintenance API")
    parser.add_argument("subject", help="actor id recorded as updatedBy")
    parser.add_argument("--role", default="admin")
    args = parser.parse_args()
    print(issue_token(args.subject, args.role))
