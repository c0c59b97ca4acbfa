"""Reading go.mod dependencies and choosing their tags or release branches for a release."""