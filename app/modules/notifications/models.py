# Supabase table: notifications
# This file documents the expected database schema
# Actual operations go through the persistence gateway (app/database)

"""
Expected Supabase table structure:

notifications:
- id: uuid (primary key, default: gen_random_uuid())
- user_id: uuid (not null) - recipient
- text: text (not null)
- metadata: jsonb (nullable) - group_id, group_name, poll_id, place, address, date, time, attendees
- read: boolean (not null, default: false)
- type: text (not null, default: 'plan_confirmation')
- created_at: timestamp (default: now())

Index: (user_id, created_at desc)
"""
