"""Mirror a remote folder/album gallery tree onto local disk."""
