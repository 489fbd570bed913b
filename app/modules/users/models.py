# Supabase tables: user_profiles, auth.users
# This file documents the expected database schema
# Actual operations go through the persistence gateway (app/database)
# Authentication is handled by Supabase Auth (auth.users table)

"""
Expected Supabase table structure:

user_profiles:
- id: uuid (primary key, references auth.users.id)
- email: text (nullable) - synced from auth.users
- full_name: text (nullable)
- avatar_url: text (nullable)
- favorite_genres: text[] (default: '{}') - TMDB genre names, read by /planmovies
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
"""
