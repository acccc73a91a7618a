# contracts/build.py
from pathlib import Path

from rpsls_escrow.artifacts import write_artifacts

ARTIFACTS = Path(__file__).resolve().parent.parent / "artifacts"


def main():
    write_artifacts(ARTIFACTS)
    print("Wrote artifacts to", ARTIFACTS)


if __name__ == "__main__":
    main()
