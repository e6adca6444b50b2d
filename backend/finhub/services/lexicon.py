"""
Declarative lookup tables for the ingestion heuristics.

Order matters wherever a table is scanned with "first match wins": longer,
more specific names come before the shorter names they contain.
"""

# Words that suggest an email describes a transaction (classifier gate).
FINANCIAL_KEYWORDS = (
    "receipt",
    "invoice",
    "payment",
    "bill",
    "order",
    "subscription",
    "charge",
    "confirm",
)

# Vendor tokens checked against the sender address when no keyword matched.
COMMON_VENDORS = (
    "amazon",
    "netflix",
    "spotify",
    "aws",
    "zoom",
    "microsoft",
    "google",
    "apple",
)

# Service names a highlight can be attributed to.
KNOWN_SERVICES = (
    "Amazon Web Services",
    "Amazon Prime",
    "Amazon",
    "AWS",
    "Netflix",
    "Spotify",
    "YouTube Premium",
    "Disney+",
    "Hulu",
    "Zoom",
    "Slack",
    "Notion",
    "Figma",
    "GitHub",
    "GitLab",
    "Google Workspace",
    "Google Cloud",
    "Google",
    "Microsoft 365",
    "Microsoft Azure",
    "Microsoft",
    "iCloud",
    "Apple",
    "Dropbox",
    "Adobe",
    "Salesforce",
    "HubSpot",
    "Atlassian",
    "Jira",
    "Asana",
    "Trello",
    "Canva",
    "OpenAI",
    "ChatGPT",
    "Heroku",
    "DigitalOcean",
    "Vercel",
    "Twilio",
    "Mailchimp",
    "Zendesk",
    "Shopify",
    "Stripe",
    "PayPal",
    "Uber",
    "Airbnb",
    "LinkedIn",
)

# Phrases that mark a sentence as carrying decision/issue/benefit context.
# Matched as lowercase substrings.
CONTEXT_INDICATOR_KEYWORDS = (
    # reasoning
    "because",
    "reason",
    "due to",
    "in order to",
    # decisions
    "decided",
    "decision",
    "we chose",
    "i chose",
    "switched",
    "switching to",
    "going with",
    "opted",
    "prefer",
    "instead of",
    "renew",
    "cancel",
    # problems
    "problem",
    "issue",
    "bug",
    "outage",
    "downtime",
    "too expensive",
    "price increase",
    "frustrat",
    "complain",
    "not working",
    # benefits
    "benefit",
    "helps us",
    "helped us",
    "saves",
    "saved us",
    "worth it",
    "improve",
    "love",
    "recommend",
)

# Currency symbols and tokens used to infer a missing currency from text.
# Scanned in order; "$" is last because it is the least specific.
CURRENCY_SYMBOLS = (
    ("₹", "INR"),
    ("rs.", "INR"),
    ("inr", "INR"),
    ("€", "EUR"),
    ("eur", "EUR"),
    ("£", "GBP"),
    ("gbp", "GBP"),
    ("$", "USD"),
)

# Categories offered to the extraction oracle.
FINANCIAL_CATEGORIES = (
    "Groceries",
    "Utilities",
    "Software",
    "Subscription",
    "Electronics",
    "Clothing",
    "Travel",
    "Transportation",
    "Food & Dining",
    "Entertainment",
    "Online Retail",
    "Professional Services",
    "Healthcare",
    "Education",
    "Home Goods",
    "Gifts & Donations",
    "Financial Services",
    "Business Services",
    "Cloud Services",
    "Other",
)

# Free-text billing cycle -> canonical value
BILLING_CYCLE_SYNONYMS = {
    "one-time": "one-time",
    "one time": "one-time",
    "onetime": "one-time",
    "once": "one-time",
    "single": "one-time",
    "monthly": "monthly",
    "month": "monthly",
    "per month": "monthly",
    "every month": "monthly",
    "quarterly": "quarterly",
    "quarter": "quarterly",
    "every quarter": "quarterly",
    "every three months": "quarterly",
    "annually": "annually",
    "annual": "annually",
    "yearly": "annually",
    "year": "annually",
    "per year": "annually",
    "every year": "annually",
}
