# Supabase table: groups
# This file documents the expected database schema
# Actual operations go through the persistence gateway (app/database)

"""
Expected Supabase table structure:

groups:
- id: uuid (primary key, default: gen_random_uuid())
- name: text (not null)
- creator_id: uuid (not null) - always present in members
- members: uuid[] (not null) - ordered by join time
- invite_code: text (unique, nullable) - 6 uppercase characters
- last_message: jsonb (nullable) - {text, sender_name, timestamp}; older rows hold it as JSON text
- created_at: timestamp (default: now())
"""
