from campus_dashboard.entrypoint import run

if __name__ == "__main__":
    run()
