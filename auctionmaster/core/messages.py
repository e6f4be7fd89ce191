"""Outcome and rejection texts returned to the presentation layer."""

# Creation
AUCTION_CREATED = "Auction created for {item}!"
ITEM_BLACKLISTED = "This item cannot be auctioned!"
MAX_AUCTIONS_REACHED = "You already have {max} active auctions!"
PRICE_TOO_LOW = "Start price must be at least {min_price:.2f}!"
PRICE_TOO_HIGH = "Start price cannot exceed {max_price:.2f}!"
INVALID_BUY_NOW_PRICE = "Buy-now price must be higher than start price!"
DURATION_TOO_SHORT = "Duration must be at least {hours} hour(s)!"
DURATION_TOO_LONG = "Duration cannot exceed {hours} hours!"
INSUFFICIENT_FUNDS_FEE = "You need {fee:.2f} to list this auction!"

# Bidding
BID_PLACED = "You bid {amount:.2f} on {item}!"
BID_TOO_LOW = "Your bid must be at least {min_bid:.2f}!"
INSUFFICIENT_FUNDS_BID = "You need {amount:.2f} to place this bid!"
CANNOT_BID_OWN = "You cannot bid on your own auction!"
AUCTION_EXPIRED = "This auction has expired!"
AUCTION_NOT_ACTIVE = "This auction is not active!"

# Buy now
BOUGHT_NOW = "You bought {item} for {amount:.2f}!"
NO_BUY_NOW = "This auction doesn't have a buy-now price!"
CANNOT_BUY_OWN = "You cannot buy your own auction!"

# Settlement
AUCTION_SOLD = "Auction for {item} sold to {bidder} for {amount:.2f}."
AUCTION_EXPIRED_NO_BIDS = "Auction for {item} expired without any bids."
AUCTION_MARKED_CLAIMED = "Auction for {item} fully claimed."
AUCTION_NOT_DUE = "This auction has not ended yet."
CLAIMS_OUTSTANDING = "{count} claim(s) for this auction are still pending."

# Cancellation
AUCTION_CANCELLED = "Auction cancelled."
CANCEL_FEE_CHARGED = "Auction cancelled. Cancellation fee of {fee:.2f} was charged."
CANCEL_NOT_ALLOWED = "You cannot cancel this auction!"
NOT_SELLER = "You are not the seller of this auction!"
CANNOT_CANCEL = "This auction cannot be cancelled!"
INSUFFICIENT_FUNDS_CANCEL = "You need {fee:.2f} to cancel this auction!"

# Claims
CLAIM_RECEIVED_ITEM = "You received {item}!"
CLAIM_RECEIVED_MONEY = "You received {amount:.2f}!"
INVENTORY_FULL = "Your inventory is full! Free up space and try again."
CLAIM_NOT_FOUND = "This claim no longer exists."

# Generic
AUCTION_NOT_FOUND = "Auction not found."
TRY_AGAIN = "Something went wrong, please try again."
ECONOMY_UNAVAILABLE = "The economy is not available right now, please try again."
