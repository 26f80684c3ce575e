import json
import sys


def load(path):
    f = open(path)
    data = json.load(f)
    return data


def main():
    users = load(sys.argv[1])
    for u in users:
        print(u["first"] + " " + u["last"])


if __name__ == "__main__":
    main()
