DEFAULT_LOSS_REASONS = (
    "Melted",
    "Damaged bag",
    "Spilled in transit",
    "Customer rejected",
    "Other",
)

DEFAULT_PACKAGING_TYPES = (
    ("Ice bag (small)", "Plastic bag for tube ice"),
    ("Ice bag (large)", "Plastic bag for crushed ice"),
    ("Cooler box", "Returnable insulated box"),
)


def seed(conn):
    # Reference data only; users, drivers, routes and customers are owned
    # by other services.
    conn.executemany(
        "INSERT OR IGNORE INTO loss_reasons(reason_description) VALUES (?)",
        [(r,) for r in DEFAULT_LOSS_REASONS],
    )
    conn.executemany(
        "INSERT OR IGNORE INTO packaging_types(type_name, description) VALUES (?, ?)",
        DEFAULT_PACKAGING_TYPES,
    )
    conn.commit()
