# Supabase table: messages
# This file documents the expected database schema
# Actual operations go through the persistence gateway (app/database)

"""
Expected Supabase table structure:

messages:
- id: uuid (primary key, default: gen_random_uuid())
- group_id: uuid (foreign key to groups.id, not null)
- sender_id: text (not null) - a user id, or 'planbot' for system messages
- sender_name: text (not null)
- sender_avatar: text (default: '')
- text: text (not null)
- poll_id: uuid (nullable) - set on poll announcements
- is_system_message: boolean (default: false)
- reactions: jsonb (default: '[]') - [{emoji, user_id}] in the order they were added
- created_at: timestamp (default: now())

Index: (group_id, created_at). Readers always order by created_at ascending.
"""
