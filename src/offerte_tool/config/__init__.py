"""Configuration for the offerte tool."""
