from .cli import detect_main

if __name__ == "__main__":
    raise SystemExit(detect_main())
