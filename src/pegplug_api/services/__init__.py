"""Application services orchestrating the reward domain over the store."""
