"""FitSquad backend package."""
