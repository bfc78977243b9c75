# Supabase-backed services: data access, authentication, identity gate and the registration wizard.
