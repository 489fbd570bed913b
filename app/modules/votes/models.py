# Supabase table: votes
# This file documents the expected database schema
# Actual operations go through the persistence gateway (app/database)

"""
Expected Supabase table structure:

votes:
- id: uuid (primary key, default: gen_random_uuid())
- poll_id: uuid (foreign key to polls.id, not null)
- user_id: uuid (not null)
- choice: text (not null) - values: join, maybe, no
- created_at: timestamp (default: now())
- unique constraint on (poll_id, user_id) - target of the vote upsert
"""
