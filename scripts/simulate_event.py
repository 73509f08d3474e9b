import os, sys, json, psycopg
from psycopg.rows import dict_row
from dotenv import load_dotenv

load_dotenv()
DB = os.getenv("DATABASE_URL")
goal = sys.argv[1] if len(sys.argv) > 1 else "Financial Freedom"

# The insert trigger publishes the id on LISTEN form_submissions.
with psycopg.connect(DB, row_factory=dict_row) as conn:
    row = conn.execute("""
      insert into form_submissions (email, primary_goal, additional_info)
      values (%s, %s, %s)
      returning id
    """, ("test@example.com", goal, json.dumps({"note": "Simulated submission"}))).fetchone()
    conn.commit()
print("Inserted form submission", row["id"])
