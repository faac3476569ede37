"""Schema v1 - Initial database schema.

This version includes tables for:
- Accounts, profiles and sessions
- Shoe listings, checkouts and sale records
- Buyer notifications
- Seller/customer messages with a realtime notify trigger
- Social posts, comments and likes
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'accounts',
            'columns': [
                {'name': 'user_id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'email', 'type': 'TEXT', 'nullable': False},
                {'name': 'password_hash', 'type': 'TEXT', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_accounts_email', 'columns': ['lower(email)'], 'unique': True}
            ]
        },
        {
            'name': 'users',
            'columns': [
                {'name': 'user_id', 'type': 'UUID', 'primary_key': True},
                {'name': 'first_name', 'type': 'TEXT', 'nullable': False},
                {'name': 'last_name', 'type': 'TEXT', 'nullable': False},
                {'name': 'email', 'type': 'TEXT', 'nullable': False},
                {'name': 'contact_number', 'type': 'TEXT'},
                {'name': 'address', 'type': 'TEXT'},
                {'name': 'type', 'type': 'TEXT', 'nullable': False},
                {'name': 'photo_url', 'type': 'TEXT'},
                {'name': 'location', 'type': 'TEXT'},
                {'name': 'phone', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'checks': ["type IN ('SELLER', 'CUSTOMER')"],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'accounts(user_id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_users_type', 'columns': ['type']}
            ]
        },
        {
            'name': 'auth_sessions',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'user_id', 'type': 'UUID', 'nullable': False},
                {'name': 'token', 'type': 'TEXT', 'nullable': False},
                {'name': 'expires_at', 'type': 'TIMESTAMP', 'nullable': False},
                {'name': 'revoked', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
                {'name': 'revoked_at', 'type': 'TIMESTAMP'},
                {'name': 'user_agent', 'type': 'TEXT'},
                {'name': 'ip_address', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'last_used_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'accounts(user_id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_sessions_user', 'columns': ['user_id']},
                {'name': 'idx_sessions_token', 'columns': ['token'], 'unique': True}
            ]
        },
        {
            'name': 'shoes',
            'columns': [
                {'name': 'shoe_id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'shoe_name', 'type': 'TEXT', 'nullable': False},
                {'name': 'brand', 'type': 'TEXT', 'nullable': False},
                {'name': 'category', 'type': 'TEXT'},
                {'name': 'description', 'type': 'TEXT'},
                {'name': 'price', 'type': 'DECIMAL', 'nullable': False},
                {'name': 'color', 'type': 'TEXT[]', 'nullable': False, 'default': "'{}'"},
                {'name': 'size', 'type': 'TEXT[]', 'nullable': False, 'default': "'{}'"},
                {'name': 'material', 'type': 'TEXT[]', 'nullable': False, 'default': "'{}'"},
                {'name': 'image_url', 'type': 'TEXT'},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'AVAILABLE'"},
                {'name': 'published_by', 'type': 'UUID', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'checks': ["status IN ('AVAILABLE', 'PENDING', 'SOLD')", 'price > 0'],
            'foreign_keys': [
                {'columns': ['published_by'], 'references': 'users(user_id)'}
            ],
            'indexes': [
                {'name': 'idx_shoes_publisher', 'columns': ['published_by']},
                {'name': 'idx_shoes_status', 'columns': ['status']}
            ]
        },
        {
            'name': 'checkouts',
            'columns': [
                {'name': 'checkout_id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'buyer_id', 'type': 'UUID', 'nullable': False},
                {'name': 'shoe_id', 'type': 'UUID', 'nullable': False},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'PENDING'"},
                {'name': 'payment_method', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'checks': ["status IN ('PENDING', 'SENDING', 'CANCELLED')"],
            'foreign_keys': [
                {'columns': ['buyer_id'], 'references': 'users(user_id)'},
                {'columns': ['shoe_id'], 'references': 'shoes(shoe_id)'}
            ],
            'indexes': [
                {'name': 'idx_checkouts_shoe', 'columns': ['shoe_id']},
                {'name': 'idx_checkouts_buyer', 'columns': ['buyer_id']},
                {'name': 'idx_checkouts_status', 'columns': ['status']}
            ]
        },
        {
            'name': 'notifications',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'message', 'type': 'TEXT', 'nullable': False},
                {'name': 'sender_id', 'type': 'UUID'},
                {'name': 'recipient_id', 'type': 'UUID', 'nullable': False},
                {'name': 'shoe_id', 'type': 'UUID'},
                {'name': 'read', 'type': 'BOOLEAN', 'nullable': False, 'default': 'false'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['recipient_id'], 'references': 'users(user_id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_notifications_recipient', 'columns': ['recipient_id', 'read']}
            ]
        },
        {
            'name': 'sales',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'shoe_id', 'type': 'UUID', 'nullable': False},
                {'name': 'seller_id', 'type': 'UUID', 'nullable': False},
                {'name': 'buyer_id', 'type': 'UUID', 'nullable': False},
                {'name': 'price', 'type': 'DECIMAL', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['shoe_id'], 'references': 'shoes(shoe_id)'}
            ],
            'indexes': [
                {'name': 'idx_sales_seller', 'columns': ['seller_id']},
                {'name': 'idx_sales_buyer', 'columns': ['buyer_id']},
                # One sale per listing: a listing is sold exactly once
                {'name': 'idx_sales_shoe', 'columns': ['shoe_id'], 'unique': True}
            ]
        },
        {
            'name': 'messages',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'seller_id', 'type': 'UUID', 'nullable': False},
                {'name': 'customer_id', 'type': 'UUID', 'nullable': False},
                {'name': 'message', 'type': 'TEXT', 'nullable': False},
                {'name': 'sender', 'type': 'TEXT', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'checks': ["sender IN ('SELLER', 'CUSTOMER')"],
            'foreign_keys': [
                {'columns': ['seller_id'], 'references': 'users(user_id)'},
                {'columns': ['customer_id'], 'references': 'users(user_id)'}
            ],
            'indexes': [
                {'name': 'idx_messages_conversation', 'columns': ['seller_id', 'customer_id', 'created_at']}
            ]
        },
        {
            'name': 'posts',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'user_id', 'type': 'UUID', 'nullable': False},
                {'name': 'content', 'type': 'TEXT', 'nullable': False},
                {'name': 'image_url', 'type': 'TEXT'},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['user_id'], 'references': 'users(user_id)'}
            ],
            'indexes': [
                {'name': 'idx_posts_user', 'columns': ['user_id']},
                {'name': 'idx_posts_created', 'columns': ['created_at']}
            ]
        },
        {
            'name': 'comments',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'post_id', 'type': 'UUID', 'nullable': False},
                {'name': 'user_id', 'type': 'UUID', 'nullable': False},
                {'name': 'content', 'type': 'TEXT', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'foreign_keys': [
                {'columns': ['post_id'], 'references': 'posts(id)', 'on_delete': 'CASCADE'}
            ],
            'indexes': [
                {'name': 'idx_comments_post', 'columns': ['post_id', 'created_at']}
            ]
        },
        {
            'name': 'likes',
            'columns': [
                {'name': 'post_id', 'type': 'UUID', 'nullable': False},
                {'name': 'user_id', 'type': 'UUID', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['post_id', 'user_id'],
            'foreign_keys': [
                {'columns': ['post_id'], 'references': 'posts(id)', 'on_delete': 'CASCADE'}
            ]
        }
    ],
    'triggers': [
        {
            'name': 'notify_new_message_trigger',
            'function_name': 'notify_new_message',
            'table': 'messages',
            'timing': 'AFTER',
            'event': 'INSERT',
            'function_body': '''
                BEGIN
                    PERFORM pg_notify('new_message', NEW.id::text);
                    RETURN NEW;
                END;
            '''
        }
    ]
}
