import os, psycopg
from datetime import datetime, timezone
from psycopg.rows import dict_row
from dotenv import load_dotenv

load_dotenv()
DB = os.getenv("DATABASE_URL")
users = [
  ("alicia@example.com", "daily"),
  ("marco@example.com", "weekly"),
  ("dana@example.com", "monthly"),
]
prompt = "How did this week go? Anything you'd like to change about your plan?"

with psycopg.connect(DB, row_factory=dict_row) as conn:
    conn.execute("insert into campaigns (prompt_text, is_active) values (%s, true)", (prompt,))
    for email, freq in users:
        # verified and already due, so the next scheduler cycle picks them up
        conn.execute("""
          insert into users (email, is_verified, checkin_frequency, next_checkin_due)
          values (%s, true, %s, %s)
          on conflict (email) do nothing
        """, (email, freq, datetime.now(timezone.utc)))
    conn.commit()
print("Seeded 1 campaign and", len(users), "users")
