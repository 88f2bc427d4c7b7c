from transactions.database import check_connection, create_tables, get_database_url


def main():
    print(f"Testing database connection ({get_database_url().split('@')[-1]})...")
    if not check_connection():
        print("Failed to connect to database. Please check your .env file.")
        return 1
    print("\nCreating database tables...")
    create_tables()
    print("Database tables created successfully!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
